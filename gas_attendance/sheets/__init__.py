"""Sheet payload handling: normalization, date helpers and local workbooks."""
