"""Pure, idempotent file content transforms.

Each function takes the current text (or decoded JSON) of one file and
returns the new text. Returning the input unchanged means nothing to do.
"""
