#!/usr/bin/env python

import setuptools

setuptools.setup(
    name="pagestreamer",
    version="0.1.0",
    author="Chen Yang",
    author_email="healthonrails@gmail.com",
    description="Stream multi-page documents into an embedded web viewer with resilient asset loading and a host/runtime message bridge.",
    packages=setuptools.find_packages(include=["pagestreamer", "pagestreamer.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    install_requires=['httpx>=0.24',
                      'PyYAML>=5.3',
                      'termcolor>=2.0',
                      'colorama>=0.4.6; platform_system=="Windows"',
                      'qtpy>=2.0',
                      ],
    extras_require={
        'gui': ['PyQt5>=5.15', 'PyQtWebEngine>=5.15'],
        'tests': ['pytest>=7.0'],
    },
    python_requires='>=3.10',
)
