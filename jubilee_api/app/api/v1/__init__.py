"""
Version 1 of the Silver Jubilee API.

Routes are mounted under ``/api`` (without a version segment) because
the deployed frontend calls those paths directly.
"""
