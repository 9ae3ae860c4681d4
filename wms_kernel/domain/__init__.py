"""Pure domain layer: value objects, clock, cancellation, amendment details."""
