"""Page scheduling: worker slots, renderers and the wave scheduler."""
