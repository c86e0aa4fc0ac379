"""Runtime primitives shared by the scheduling and playback engines."""
