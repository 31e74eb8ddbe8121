"""
Pydantic schemas for request and response bodies.

Every public JSON document uses camelCase keys, matching what the web
client sends and reads.  Models that cross the wire set an alias
generator so that Python code can keep snake_case attribute names.
"""
