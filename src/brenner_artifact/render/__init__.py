"""Artifact markdown rendering."""

from brenner_artifact.render.markdown import render, render_front_matter

__all__ = ["render", "render_front_matter"]
