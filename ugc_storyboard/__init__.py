"""UGC ad storyboard generation: plan, render and regenerate storyboard frames"""

__version__ = "1.0.0"
