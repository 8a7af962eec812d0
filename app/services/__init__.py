"""Service layer: vendor streaming, prompts, broadcast and the analysis workflow."""
