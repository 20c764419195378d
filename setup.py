# LINECUBE: Interactive slicing of spectral-line data cubes

# authors:
#              Clement Atlan, c.atlan@outlook.com
import setuptools

setuptools.setup(
      name='linecube',
      version='0.1.0',
      author="Clement Atlan",
      description=(
            "A python package to slice, integrate and explore "
            "spectral-line (position-position-velocity) data cubes"
      ),
      author_email="c.atlan@outlook.com",
      package_dir={"": "src"},
      packages=setuptools.find_packages(where="src"),
      package_data={"linecube": ["__init__.pyi"]},
      include_package_data=True,
      url="https://github.com/clatlan/linecube",
      python_requires=">=3.10",
      install_requires=[
            "astropy>=5.0",
            "matplotlib>=3.5.2",
            "numpy>=1.23.5",
            "PyYAML>=6.0",
      ],
      extras_require={
            "interactive": [
                  "ipywidgets>=8.0",
                  "plotly>=5.0",
            ],
            "test": [
                  "pytest>=7.0",
                  "ipywidgets>=8.0",
                  "plotly>=5.0",
            ],
      },
)
