"""Counting, growth and ordering modules."""

from . import graph
from . import grouping
from . import histogram
from . import coverage
from . import growth
from . import ordering
from . import table
from . import inputs
from . import output
