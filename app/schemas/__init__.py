# Schemas package (re-export feature modules for stable imports)
from .collection.bag import *
from .analysis.analysis import *
from .common.common import *
