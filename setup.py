from setuptools import setup, find_packages

setup(
    name="vncaudio",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=[
        "dataclasses-json>=0.6.1",
        "click>=8.2",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "vncaudio=vncaudio.cli:run",
        ],
    },
    python_requires=">=3.8",
    author="Ben Baptist",
    description="Stream QEMU guest audio from a VNC server as raw PCM",
    keywords="qemu, vnc, rfb, audio",
)
