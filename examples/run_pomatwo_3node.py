"""Three node example, zonal day-ahead with prosumers and redispatch, then nodal pricing."""
from pathlib import Path
import pomatwo

# Init POMATWO with the options file and the dataset
wdir = Path(__file__).parent
mato = pomatwo.POMATWO(wdir=wdir, options_file="profiles/three_node.json")
mato.load_data('data_input/three_node')

# %% Access the data from the main pomatwo instance in the data object.
nodes = mato.data.nodes
lines = mato.grid.lines
plants = mato.data.plants
ptdf = mato.grid_representation.ptdf
zone_to_zone_ptdf = mato.grid_representation.zone_to_zone_ptdf
mato.grid.topology_report.log(show_notes=True)

# %% Run the zonal market with prosumers and redispatch
mato.run_market_model()

# Obtain the market result by name and its instance
zonal_result_name = mato.market_model.result_folders[0].name
zonal_result = mato.data.results[zonal_result_name]
print(zonal_result.status)
print("Zonal prices:\n", zonal_result.price("day_ahead"))
print("Redispatch:\n", zonal_result.get("REDISP", "redispatch").groupby("plant")[["GEN_UP", "GEN_DOWN"]].sum())

# %% Rerun as nodal market in the PTDF formulation
mato.initialize_options("profiles/three_node_nodal.json")
mato.create_grid_representation()
mato.run_market_model()

nodal_result = mato.data.results[mato.market_model.result_folders[0].name]
print("Nodal prices:\n", nodal_result.price("day_ahead"))
print("Line flows:\n", nodal_result.get("LINEFLOW").pivot(index="timestep", columns="line", values="LINEFLOW"))
