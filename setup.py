from setuptools import setup, find_packages

setup(name='pomatwo',
      version='0.1.0',
      description='Market clearing core of the Power Market Tool',
      author='Richard Weinhold',
      author_email='riw@wip.tu-berlin.de',
      url='https://github.com/richard-weinhold/pomato',
      packages=find_packages(include=['pomatwo', 'pomatwo.*']),
      python_requires='>=3.8',
      include_package_data=True,
      package_data={'pomatwo': ['data/model_structure.json']},
      install_requires=[
        'numpy',
        'pandas',
        'scipy',
        'pyomo',
        'highspy',
        'pyarrow',
        'progress',
        ],
      extras_require={
        'test': ['pytest'],
        },
     )
