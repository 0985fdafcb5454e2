"""Agents driving the storyboard pipeline and the filmmaking chat."""
