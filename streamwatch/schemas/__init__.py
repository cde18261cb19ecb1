from .stream import ClipInfo, StreamSnapshot, ViewerDataPoint

__all__ = ["ClipInfo", "StreamSnapshot", "ViewerDataPoint"]
