"""Setup file for project"""


from setuptools import setup, find_packages

with open("README.md", 'r', encoding='utf-8') as f:
    long_description = f.read()

setup(
    name                            = "blackmarble",
    version                         = "0.1.0",
    description                     = "NASA Black Marble nighttime lights rasters and zonal statistics",
    long_description                = long_description,
    long_description_content_type   = "text/markdown",
    packages                        = find_packages(include=["blackmarble", "blackmarble.*"]),
    install_requires                = [
        "requests>=2.28",
        "urllib3>=1.26",
        "pandas>=1.5",
        "numpy>=1.23",
        "python-dotenv>=1.0",
        "colorama>=0.4.6",
        "pyproj>=3.4",
        "tqdm>=4.64",
        "h5py>=3.7",
        "rasterio>=1.3",
        "affine>=2.4,<3",
        "geopandas>=0.14",
        "shapely>=2.0",
        "exactextract>=0.2",
    ],
    extras_require                  = {
        "test": ["pytest>=7.0"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",           # Minimum Python version
)
