"""
Execution — host writes that are not plain commands.
"""
