"""Environment loading and proxy options."""
