"""
Command-line layer: the Typer application and the line-oriented interpreter.
"""
