"""Cross-cutting helpers: exceptions and resilience."""
