from dataclasses import asdict, fields, is_dataclass
from typing import List, Self

class SheetFlowResourceBase():
    """
    Intended to be subclassed by a dataclass but isnt actually a dataclass.
    Gives the shared translation between the dataclass and the raw dicts
    that flow in from the caller, config files and the Sheets client.
    """
    def to_base(self) -> dict:
        """
        Default just return the dict representation of the object.
        Something more complicated can override.
        Call fixup() first to ensure all fields are in correct format.
        """
        self.fixup()
        return asdict(self)

    def trim(self) -> dict:
        """
        Return a 'trimmed' dict of the resource.  That is, removing any top level attributes
        that are empty or None.  For empty needs to be a string, or container. For None
        needs to be a value like int or bool where 'not' could be a valid value.
        """
        b = self.to_base()
        if b:
            vals = dict(b.items())
            for k,v in vals.items():
                if v is None or (type(v) not in [int,bool,float] and not v):
                    del b[k]
        return b

    def fixup(self) -> None:
        """
        notify a subclass to do any field adjustments
        """
        pass

    def update_fields(self, **kwargs) -> List[str]:
        """
        Update fields that may be present.
        Unknown names and None values are ignored.
        """
        updated_fields = []
        if is_dataclass(self):
            names = {f.name for f in fields(self)}
            for k,v in kwargs.items():
                if v is not None and k in names:
                    setattr(self, k, v)
                    updated_fields.append(k)
            self.fixup()
        return updated_fields

    @classmethod
    def from_dict(cls, values: dict|None) -> Self:
        """
        Build from a dict, dropping keys that are not fields so a config
        file with extra sections doesn't blow up the constructor.
        """
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k,v in dict(values or {}).items() if k in names})
