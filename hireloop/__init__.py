"""HireLoop: autonomous recruiting pipeline."""
