# Update this for the versions
# Don't change the forth version number from None
VERSION = (1, 0, 0, None)
