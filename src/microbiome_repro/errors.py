# ==================================== EXCEPTIONS ==================================== #

class InvalidInputError(ValueError):
    """Malformed or inconsistent input: label mismatches, overlapping sample sets,
    missing taxonomy, negative counts. Always fatal to the step that raised it."""
