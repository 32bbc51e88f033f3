import json

import numpy as np
import torch


## JSON encoder for numpy and torch values found in parameters
class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        # NumPy scalar -> native Python scalar
        if isinstance(obj, np.generic):
            return obj.item()
        # NumPy array -> list
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, torch.Tensor):
            if torch.is_complex(obj):
                return {"real": obj.real.tolist(), "imag": obj.imag.tolist()}
            return obj.tolist()
        if isinstance(obj, torch.Size):
            return list(obj)
        if isinstance(obj, complex):
            return {"real": obj.real, "imag": obj.imag}
        return json.JSONEncoder.default(self, obj)

