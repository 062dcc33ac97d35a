"""External API clients: Google CSE, Apollo, Claude, Gmail (Composio), Calendly."""
