"""Adult mental health community KPI analysis."""
