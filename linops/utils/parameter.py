## This file contains a general class to store LinopParameter files.
## You should inherit from this class for any parameter setting.
import json
from pathlib import Path

from linops.utils.utils import NumpyEncoder


class LinopParameter:
    def __init__(self, **kwargs):
        """
        Initialize LinopParameter from dictionary
        """
        for item in kwargs:
            if isinstance(kwargs[item], dict):
                setattr(self, item, LinopParameter(**(kwargs[item])))
            else:
                setattr(self, item, kwargs[item])

    def is_filled(self):
        """
        Check if the values are not None
        """
        if any(v is None for v in vars(self).values()):
            raise ValueError("Not all parameters set")

    def serialize(self):
        """
        This only exists to allow LinopParameter() inside LinopParameter()
        otherwise, its equivalent to vars(self)
        """
        d = dict(vars(self))
        for k, v in d.copy().items():
            if isinstance(v, LinopParameter):
                d[k] = v.serialize()
            if isinstance(v, Path):
                d[k] = str(v)
            if isinstance(v, tuple):
                d[k] = list(v)
        return d

    def save(self, fname):
        """
        Save LinopParameter into a JSON file
        """
        if isinstance(fname, str):
            fname = Path(fname)
        if fname.suffix != ".json":
            fname = fname.with_suffix(".json")
        with open(fname, "w", encoding="utf-8") as f:
            json.dump(
                self.serialize(), f, ensure_ascii=False, indent=4, cls=NumpyEncoder
            )
        return fname

    def load(self, fname):
        """
        Load LinopParameter from JSON file, and initialize instance
        """
        if isinstance(fname, str):
            fname = Path(fname)
        with open(fname, "r", encoding="utf-8") as f:
            d = json.load(f)
        self.__init__(**d)
        return self

    def __eq__(self, other):
        if not isinstance(other, LinopParameter):
            return NotImplemented
        return self.serialize() == other.serialize()

    def __str__(self):
        """
        Overload the str for printing.
        """
        d = vars(self)
        string = []
        for x in d:
            string.append(str(x) + " : " + str(d[x]))
        return "\n".join(string)

    def unpack(self):
        """
        If the LinopParameter is made of other Parameters, unpack those.
        """
        # Get all attributes
        attributes = vars(self).copy()
        # pop all attributes that are NOT a LinopParameter()
        for key in list(attributes.keys()):
            if not isinstance(attributes[key], LinopParameter):
                del attributes[key]
            else:
                delattr(self, key)
        return attributes
