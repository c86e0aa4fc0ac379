"""
Marquee: schedule selection and playlist playback for unattended displays.

The scheduling side picks the schedule that fired most recently and turns it
into an ActiveLayout; the playback side drives one looping playlist per
region of that layout.
"""

__version__ = "0.1.0"
