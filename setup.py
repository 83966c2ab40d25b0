from setuptools import setup
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(name='kcore',
      version='1.0.0',
      description='Typed layout decoding and Mach-O core file loaded image recovery.',
      long_description=long_description,
      long_description_content_type='text/markdown',
      python_requires='>=3.8',
      author='kritanta',
      install_requires=['Pygments'],
      extras_require={'test': ['pytest']},
      packages=['klayout', 'kmacho', 'kcore'],
      package_dir={
            'klayout': 'src/klayout',
            'kmacho': 'src/kmacho',
            'kcore': 'src/kcore'
      },
      classifiers=[
            'Programming Language :: Python :: 3',
            'License :: OSI Approved :: MIT License',
            'Operating System :: OS Independent'
      ]
      )
