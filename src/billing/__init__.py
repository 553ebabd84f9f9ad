"""Business entities read and transitioned by the notification sweeps.

Invoice and customer management lives elsewhere; this package only maps the
columns the overdue and reminder sweeps filter on and the fields the
notification messages render.
"""
