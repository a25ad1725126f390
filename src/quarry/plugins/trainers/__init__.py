"""Built-in trainer plugins backed by scikit-learn."""
