"""
Concert Access Layer access-policy service.
"""
