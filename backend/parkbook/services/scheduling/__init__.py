"""Time-slot scheduling primitives: time parsing, recurrence expansion, working-hours and overlap checks."""
