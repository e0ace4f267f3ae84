"""Device handles and storage dispatch.

Everything that allocates a buffer for varbank goes through a Device, so the
CPU and CUDA code paths stay side by side in one place.
"""
from __future__ import annotations

from varbank.device.backend import BackendDevice, CpuBackend, CudaBackend
from varbank.device.device import Device
from varbank.device.host import HostArray, NdArray, as_host_array
from varbank.device.storage import DeviceKind, DeviceLocation, Storage

__all__ = [
    "BackendDevice",
    "CpuBackend",
    "CudaBackend",
    "Device",
    "DeviceKind",
    "DeviceLocation",
    "HostArray",
    "NdArray",
    "Storage",
    "as_host_array",
]
