#!/usr/bin/env python

class ConfigurationError(RuntimeError):
    '''Indicates a fatal setup problem (missing compressor, unwritable output, bad option)
       detected before any read is processed.'''

    def __init__(self, reason):
        super(ConfigurationError, self).__init__(reason)

class MissingToolError(ConfigurationError):
    '''A required external executable is not installed or does not run'''
    pass
