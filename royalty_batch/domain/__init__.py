"""Pure batch DTOs and the retry policy. ZERO I/O."""
