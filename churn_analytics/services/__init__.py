"""Service layer of the churn analytics engine."""
