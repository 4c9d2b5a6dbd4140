"""
Monte Carlo Validation

End-to-end simulation studies of estimator bias on generated networks.
These runs take minutes and are marked ``slow``.
"""
