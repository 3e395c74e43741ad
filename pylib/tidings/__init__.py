'''Tidings: feed fetching with conditional requests and adaptive re-poll scheduling.'''

__version__ = '0.1.0'
