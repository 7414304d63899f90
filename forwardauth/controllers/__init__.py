"""Request controllers for the forward-authentication gateway."""

from . import authentication
