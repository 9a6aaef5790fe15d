"""HTTP surface: webhook receiver, temp media and on-demand messaging."""
