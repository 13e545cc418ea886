"""HTTP front door and SSE transport."""
