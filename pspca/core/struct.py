"""C-like structures with class-level defaults.

Fields are annotated class attributes. Their class-level value is the
default, which is (shallow-)copied into each instance so that instances
never share mutable defaults. A `Field` can be used instead of a plain
value to attach a validator, a default factory or to hide the field
from the representation.

```python
>> class Options(Structure):
>>     max_iter: int = 100
>>     tol: float = Field(1e-5, validator=lambda x: x > 0)
>>
>> opt = Options(max_iter=10)
>> opt.update({'tol': 1e-3})
>> opt['max_iter']
10
```
"""
from copy import copy
import torch


class MISSING:
    """Tag an argument as MISSING (= not user-provided)"""
    pass


class Field:
    """Description of a structure field."""

    def __init__(self, default=MISSING, default_factory=MISSING,
                 validator=None, repr=True):
        """

        Parameters
        ----------
        default : object, optional
            A default value. Cannot be used with `default_factory`.
        default_factory : callable, optional
            A zero-argument factory for the default value.
        validator : callable(object) -> bool, optional
            Function that checks new values.
        repr : bool, default=True
            Show the field in the representation of the structure.
        """
        if (default is not MISSING) and (default_factory is not MISSING):
            raise ValueError('Cannot use both `default` and `default_factory`')
        self.default = default
        self.default_factory = default_factory
        self.validator = validator
        self.repr = repr

    def make_default(self):
        if self.default_factory is not MISSING:
            return self.default_factory()
        return copy(self.default)


class Structure:
    """Base class for structures.

    Values can be given at initialization as a dictionary and/or
    keywords (keywords win). Fields without a default value must be
    provided at initialization.
    """

    def __init__(self, as_dict=None, **kwargs):
        fields = {}
        for key in self._all_annotations():
            value = getattr(type(self), key, MISSING)
            fields[key] = value if isinstance(value, Field) \
                else Field(default=value)
        object.__setattr__(self, '_fields', fields)

        values = dict(as_dict or {})
        values.update(kwargs)
        for key, value in values.items():
            if key not in fields:
                raise KeyError(f'Unknown field {key} in '
                               f'{type(self).__name__}')
            setattr(self, key, value)
        for key, field in fields.items():
            if key in values:
                continue
            if field.default is MISSING and field.default_factory is MISSING:
                raise TypeError(f'Missing required argument {key}')
            setattr(self, key, field.make_default())

    def __setattr__(self, key, value):
        field = self._fields.get(key, None)
        if field is not None and field.validator is not None:
            if not field.validator(value):
                raise ValueError(f'Value {value!r} failed validation '
                                 f'for attribute {key}')
        object.__setattr__(self, key, value)

    def _all_annotations(self):
        """Get all annotations from all base classes (parents first)"""
        annotations = {}
        for klass in reversed(type(self).__mro__):
            annotations.update(getattr(klass, '__annotations__', {}))
        return annotations

    def update(self, other=None, **kwargs):
        """Update fields from a structure, a dict-like object or keywords

        Returns
        -------
        self

        """
        if other is not None:
            items = other.items() if hasattr(other, 'items') else other
            for key, value in items:
                if key not in self.keys():
                    raise KeyError(key)
                setattr(self, key, value)
        if kwargs:
            self.update(kwargs)
        return self

    def copy(self):
        return type(self)(dict(self.items()))

    def keys(self):
        """All field names, in the order they were defined."""
        return self._fields.keys()

    def items(self):
        for key in self.keys():
            yield key, getattr(self, key)

    def values(self):
        for key in self.keys():
            yield getattr(self, key)

    def __getitem__(self, key):
        if key not in self.keys():
            raise KeyError(key)
        return getattr(self, key)

    def __setitem__(self, key, value):
        if key not in self.keys():
            raise KeyError(key)
        setattr(self, key, value)

    def __iter__(self):
        return iter(self.keys())

    def __contains__(self, key):
        return key in self.keys()

    def __repr__(self):
        lines = [f'{type(self).__name__}(']
        for key, value in self.items():
            if not self._fields[key].repr:
                continue
            value = repr(value).replace('\n', '\n  ')
            lines.append(f'  {key} = {value},')
        lines.append(')')
        return '\n'.join(lines)

    def __eq__(self, other):
        if not isinstance(other, Structure):
            return NotImplemented
        if list(self.keys()) != list(other.keys()):
            return False
        return all(_equal(self[key], other[key]) for key in self.keys())


def _equal(x, y):
    """Equality that also works on tensors (same dtype, shape and values)"""
    if x is y:
        return True
    if torch.is_tensor(x) or torch.is_tensor(y):
        return (torch.is_tensor(x) and torch.is_tensor(y)
                and x.dtype == y.dtype and x.device == y.device
                and torch.equal(x, y))
    return bool(x == y)
