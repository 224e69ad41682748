"""
Command-line interface for medicbot-cli, built with Typer and Rich.
"""
