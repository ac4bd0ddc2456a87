"""Station-Navet: idea and poll lifecycle for a station organization."""
