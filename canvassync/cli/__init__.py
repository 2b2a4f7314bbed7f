"""Command-line interface for canvassync."""
