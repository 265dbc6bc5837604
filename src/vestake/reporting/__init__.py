"""CSV/JSON export and Plotly charts."""
