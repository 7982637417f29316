"""School directory: teachers, parents, classes, students and lessons."""
