"""milesync - reliable upload of recorded workouts to the Mile A Day backend."""

__version__ = "1.0.0"
